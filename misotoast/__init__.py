"""Describes the MisoToast domain. Centres around the `Dish`.

A user asks for a dish, the dish is drafted by a language model, shown
straight away, and then picks up an image and a recipe in the background.
From there it can be branched into new versions (modify, remix, fuse) while
a history of every version is kept both locally and remotely.

Why is this hard?

- Several background completions race against a mutable "current dish".
  Every completion is applied to the dish it was launched for, by id.
- Free text is turned into structured preferences with a keyword table.
- The remote store is unreliable. Local writes always happen, remote ones
  when the network allows.
"""
