"""saucy CLI entrypoint."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import List, NoReturn, Optional

import typer

from .credentials.resolver import CredentialResolver
from .errors import ProviderError, TranscodeError
from .generation.assist import TextAssistant
from .generation.client import GenerationClient
from .generation.models import GenerationResult, ImageInput, Message, VideoReference
from .gifs.klipy import KlipyClient
from .media.preprocess import load_image_file, load_image_from_url, remove_background_simple, video_first_frame
from .session import Anonymous, Session
from .settings import Settings, get_settings
from .util.logging import emit_event, get_logger, set_level

app = typer.Typer(add_completion=False, help="Sticker and animation studio backed by Gemini and Veo.")
key_app = typer.Typer(add_completion=False, help="Manage the stored Gemini API key.")
app.add_typer(key_app, name="key")
logger = get_logger(__name__)

VIDEO_SUFFIXES = {".mp4", ".mov", ".webm"}


def instantiate_resolver(settings: Settings) -> CredentialResolver:
    return CredentialResolver.from_settings(settings)


def instantiate_client(settings: Settings, session: Session) -> GenerationClient:
    """Build the generation client used by every studio command."""
    return GenerationClient(instantiate_resolver(settings), session, settings=settings)


def instantiate_klipy(settings: Settings) -> KlipyClient:
    return KlipyClient(settings.klipy_api_key)


def _fail(message: str) -> NoReturn:
    typer.secho(message, err=True, fg=typer.colors.RED)
    raise typer.Exit(code=1)


def _load(source: str) -> ImageInput:
    """Read an image from a local path or an http(s) URL; videos contribute their first frame."""
    try:
        if source.startswith(("http://", "https://")):
            return load_image_from_url(source)
        path = Path(source)
        if path.suffix.lower() in VIDEO_SUFFIXES:
            return ImageInput(data=video_first_frame(path.read_bytes()), mime_type="image/png")
        return load_image_file(path)
    except (TranscodeError, OSError) as exc:
        _fail(f"Could not read image {source}: {exc}")


def _announce_demo(result: GenerationResult) -> None:
    if result.is_demo:
        typer.secho(result.message or "Running in demo mode.", fg=typer.colors.YELLOW)


def _write_image(result: GenerationResult, output: Path) -> None:
    if not result.success:
        _fail(result.error or "Generation failed")
    _announce_demo(result)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(result.payload)  # type: ignore[arg-type]
    typer.secho(f"Saved {output}", fg=typer.colors.GREEN)


def _print_text(result: GenerationResult) -> None:
    if not result.success:
        _fail(result.error or "Generation failed")
    _announce_demo(result)
    typer.echo(result.payload)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging")) -> None:
    if verbose:
        set_level("DEBUG")


@app.command("remove-text")
def remove_text(
    source: str = typer.Argument(..., help="Image or GIF path or URL"),
    output: Path = typer.Option(Path("./out/clean.png"), "--output", "-o", dir_okay=False),
    cutout: bool = typer.Option(False, "--cutout", help="Key out the background colour after cleaning"),
) -> None:
    """Strip captions, overlays and watermarks from an image or the first frame of a GIF."""
    client = instantiate_client(get_settings(), Anonymous())
    result = client.remove_text(_load(source))
    if cutout and result.success and isinstance(result.payload, bytes):
        try:
            result.payload = remove_background_simple(result.payload)
        except TranscodeError as exc:
            logger.warning("Background cutout skipped: %s", exc)
    _write_image(result, output)


@app.command()
def reimagine(
    source: str = typer.Argument(..., help="Image or GIF path or URL"),
    style: str = typer.Option("cartoon", "--style", help="cartoon, emoji, chibi or minimalist"),
    output: Path = typer.Option(Path("./out/sticker.png"), "--output", "-o", dir_okay=False),
) -> None:
    """Redraw the subject of an image as a sticker in one of the preset styles."""
    if style not in ("cartoon", "emoji", "chibi", "minimalist"):
        _fail(f"Unknown style: {style}")
    client = instantiate_client(get_settings(), Anonymous())
    _write_image(client.reimagine_as_sticker(_load(source), style), output)  # type: ignore[arg-type]


@app.command()
def sticker(
    prompt: str = typer.Argument(...),
    size: str = typer.Option("2K", "--size", help="1K, 2K or 4K"),
    output: Path = typer.Option(Path("./out/sticker.png"), "--output", "-o", dir_okay=False),
) -> None:
    """Generate a brand new square sticker from a prompt."""
    if size not in ("1K", "2K", "4K"):
        _fail(f"Unknown size: {size}")
    client = instantiate_client(get_settings(), Anonymous())
    _write_image(client.generate_sticker(prompt, size), output)  # type: ignore[arg-type]


@app.command()
def animate(
    prompt: str = typer.Argument(...),
    ref: List[str] = typer.Option([], "--ref", help="Reference image path or URL (up to 3)"),
    aspect_ratio: str = typer.Option("16:9", "--aspect-ratio"),
    output: Path = typer.Option(Path("./out/animation.mp4"), "--output", "-o", dir_okay=False),
) -> None:
    """Generate a short animation with Veo, polling until the job finishes."""
    if aspect_ratio not in ("16:9", "9:16", "1:1"):
        _fail(f"Unsupported aspect ratio: {aspect_ratio}")
    client = instantiate_client(get_settings(), Anonymous())
    references = [_load(item) for item in ref]
    result = client.generate_animation(
        prompt,
        references,
        aspect_ratio=aspect_ratio,  # type: ignore[arg-type]
        on_progress=lambda status: typer.echo(status),
    )
    if not result.success:
        _fail(result.error or "Failed to generate animation")
    if result.is_demo:
        _announce_demo(result)
        return
    video = result.payload
    if not isinstance(video, VideoReference):
        _fail("No video was generated. Please try a different prompt.")
    try:
        saved = client.save_video(video, output)
    except ProviderError as exc:
        _fail(f"Download failed: {exc}")
    emit_event(logger, "animate.saved", path=saved)
    typer.secho(f"Saved {saved}", fg=typer.colors.GREEN)


@app.command()
def chat(
    message: List[str] = typer.Argument(..., help="Conversation turns, alternating user and model, ending with user"),
    image: List[str] = typer.Option([], "--image", help="Image path or URL to discuss"),
) -> None:
    """Ask the creative sidekick a question."""
    turns = [
        Message(role="user" if (len(message) - 1 - idx) % 2 == 0 else "model", content=text)
        for idx, text in enumerate(message)
    ]
    client = instantiate_client(get_settings(), Anonymous())
    _print_text(client.chat(turns, [_load(item) for item in image]))


@app.command()
def brainstorm(
    image: List[str] = typer.Option([], "--image", help="Image path or URL"),
    prompt: str = typer.Option("", "--prompt", help="Current idea to refine"),
    mode: str = typer.Option("sticker", "--mode", help="sticker or animation"),
    feedback: Optional[str] = typer.Option(None, "--feedback"),
) -> None:
    """Suggest a prompt for the uploaded media."""
    if mode not in ("sticker", "animation"):
        _fail(f"Unknown mode: {mode}")
    client = instantiate_client(get_settings(), Anonymous())
    _print_text(client.brainstorm(prompt, [_load(item) for item in image], mode, feedback))  # type: ignore[arg-type]


@app.command()
def ideas(
    topic: str = typer.Argument(...),
    count: int = typer.Option(5, "--count", min=1, max=10),
    captions: bool = typer.Option(False, "--captions", help="Suggest captions instead of GIF ideas"),
) -> None:
    """Brainstorm GIF ideas or captions for a topic."""
    assistant = TextAssistant(instantiate_client(get_settings(), Anonymous()))
    results = assistant.generate_caption_suggestions(topic, None, count) if captions else assistant.generate_gif_ideas(topic, count)
    for line in results:
        typer.echo(line)


@app.command()
def search(
    query: str = typer.Argument(""),
    type: str = typer.Option("gifs", "--type", help="gifs, stickers, memes or clips"),
    limit: int = typer.Option(10, "--limit", min=1, max=50),
) -> None:
    """Search Klipy, or show trending items when the query is empty."""
    if type not in ("gifs", "stickers", "memes", "clips"):
        _fail(f"Unknown content type: {type}")
    klipy = instantiate_klipy(get_settings())
    for item in klipy.search(query, type=type, limit=limit):  # type: ignore[arg-type]
        typer.echo(f"{item.id}\t{item.title}\t{item.url}")


@key_app.command("save")
def key_save(api_key: str = typer.Argument(...)) -> None:
    """Store an API key in local storage."""
    resolver = instantiate_resolver(get_settings())
    if not resolver.save(Anonymous(), api_key):
        _fail("That doesn't look like a valid API key (expected more than 20 characters).")
    typer.secho("API key saved.", fg=typer.colors.GREEN)


@key_app.command("status")
def key_status() -> None:
    """Show where the active key comes from, or that the studio is in demo mode."""
    credential = instantiate_resolver(get_settings()).resolve(Anonymous())
    if credential.is_demo:
        typer.secho(f"Demo mode. {credential.message}", fg=typer.colors.YELLOW)
        return
    typer.echo(f"Using API key from {credential.origin.value}.")  # type: ignore[union-attr]


@key_app.command("clear")
def key_clear() -> None:
    instantiate_resolver(get_settings()).clear()
    typer.echo("Stored API key removed.")


if __name__ == "__main__":
    sys.exit(app())
