import asyncio
import logging

import openai
from rich import print
from rich.logging import RichHandler

from misotoast.config import Config
from misotoast.errors import DishError
from misotoast.kitchen import Kitchen
from misotoast.models import Dish


HELP = """\
Commands:
  /new              generate a dish from your preferences and chat
  /dish <name>      generate a specific dish
  /again            regenerate from the conversation so far
  /modify <text>    change the current dish
  /remix <text>     remix the current dish
  /fuse <text>      fuse the current dish with something else
  /cook             fetch the detailed recipe
  /final            keep the current dish
  /history          list your dishes
  /load <id>        bring back a dish from history
  /share            print the share card and link
  q                 quit
Anything else is a chat with the chef."""


def show(dish: Dish) -> None:
    print(f"[bold]{dish.title}[/bold] ({dish.id})")
    print(dish.description)
    if dish.image:
        print(dish.image)
    if dish.recipe is not None and dish.recipe.is_complete:
        print(dish.recipe.markdown)


async def handle(kitchen: Kitchen, msg: str) -> None:
    command, _, arg = msg.partition(" ")
    match command:
        case "/new":
            show(await kitchen.generate_dish())
        case "/dish":
            show(await kitchen.generate_specific_dish(arg))
        case "/again":
            show(await kitchen.regenerate_with_context())
        case "/modify" | "/remix" | "/fuse":
            operation = getattr(kitchen, command[1:])
            result = await operation(arg)
            kitchen.announce_version(result)
            for message in kitchen.messages[-2:]:
                print(message.text)
            show(result.dish)
        case "/cook":
            await kitchen.cook_dish()
            if kitchen.current_dish is not None:
                show(kitchen.current_dish)
        case "/final":
            await kitchen.finalize_dish()
        case "/history":
            for dish in kitchen.history:
                print(f"{dish.id}  {dish.timestamp:%Y-%m-%d %H:%M}  {dish.title}")
        case "/load":
            dish = await kitchen.load_dish_from_history(arg)
            if dish is not None:
                show(dish)
        case "/share":
            print(kitchen.share_text())
            print(kitchen.share_url())
        case _:
            print(kitchen.chef_reply(msg).text)
            kitchen.context.absorb(msg)


async def main():
    config = Config()
    logging.basicConfig(
        level=config.log_level,
        format="%(message)s",
        handlers=[RichHandler()],
    )
    kitchen = Kitchen.from_config(config)
    await kitchen.start_session(config.user_key)
    print(HELP)
    while True:
        msg = (await asyncio.to_thread(input, "You: ")).strip()
        if msg in ["q", "Q"]:
            break
        if not msg:
            continue
        try:
            await handle(kitchen, msg)
        except DishError as e:
            print(f"[red]{e}[/red]")
        except openai.OpenAIError as e:
            print(f"[red]{e}[/red]")
        except ValueError as e:
            print(f"[yellow]{e}[/yellow]")
        print()
    await kitchen.close()


if __name__ == "__main__":
    asyncio.run(main())
