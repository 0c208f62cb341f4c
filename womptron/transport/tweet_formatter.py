from womptron.core.custom_types import Womp


def format_tweet(womp: Womp) -> str:
    """Formats a Womp into the post text: quote, place, author, link."""
    return f"“{womp.content}” - at {womp.location} - by {womp.author} {womp.permalink}"


def alt_text_for(womp: Womp) -> str:
    # empty means "don't attach alt text"
    return womp.content.strip()
