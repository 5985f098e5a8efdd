"""CLI entrypoint for studio-queue."""

import logging
from pathlib import Path

import rich_click as click

from studio_queue import __version__
from studio_queue.queue.builders import PRESET_STYLES
from studio_queue.queue.controllers import (
    BatchCommand,
    ImageCommand,
    SessionResult,
    StudioCliController,
    VideoCommand,
)
from studio_queue.queue.handlers.image import SUPPORTED_ASPECT_RATIOS

click.rich_click.USE_MARKDOWN = True
STUDIO_CONTROLLER = StudioCliController()

_IMAGE_PATH = click.Path(exists=True, dir_okay=False, path_type=Path)


@click.group()
@click.version_option(version=__version__, prog_name="studio-queue")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging verbosity.",
)
def studio_queue(log_level: str) -> None:
    """Queue image and video generation requests against the generation API."""

    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@studio_queue.command("image")
@click.option("--prompt", required=True, help="Text prompt.")
@click.option("--negative-prompt", default="", help="Things the image should avoid.")
@click.option(
    "--count",
    type=click.IntRange(min=1, max=20),
    default=1,
    show_default=True,
    help="How many images to queue.",
)
@click.option("--model", default=None, help="Image model override.")
@click.option(
    "--aspect-ratio",
    default="1:1",
    show_default=True,
    help=f"One of {', '.join(SUPPORTED_ASPECT_RATIOS)}; custom W:H falls back to 1:1.",
)
@click.option(
    "--image-size",
    type=click.Choice(["1K", "2K", "4K"]),
    default="1K",
    show_default=True,
    help="Output size (pro models only).",
)
@click.option(
    "--ref-image",
    "ref_images",
    type=_IMAGE_PATH,
    multiple=True,
    help="Reference image. Can be repeated.",
)
@click.option(
    "--target-image",
    "target_images",
    type=_IMAGE_PATH,
    multiple=True,
    help="Subject image to transform. Can be repeated.",
)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Gallery folder for results.",
)
def image(  # noqa: PLR0913
    prompt: str,
    negative_prompt: str,
    count: int,
    model: str | None,
    aspect_ratio: str,
    image_size: str,
    ref_images: tuple[Path, ...],
    target_images: tuple[Path, ...],
    output_dir: Path | None,
) -> None:
    """Generate still images from a prompt."""

    _finish(
        STUDIO_CONTROLLER.generate_images(
            ImageCommand(
                prompt=prompt,
                negative_prompt=negative_prompt,
                count=count,
                model=model,
                aspect_ratio=aspect_ratio,
                image_size=image_size,
                ref_images=ref_images,
                target_images=target_images,
                output_dir=output_dir,
            ),
        ),
    )


@studio_queue.command("batch")
@click.option(
    "--target-image",
    "target_images",
    type=_IMAGE_PATH,
    multiple=True,
    required=True,
    help="Image to restyle. Can be repeated.",
)
@click.option(
    "--style",
    "styles",
    type=click.Choice([style.style_id for style in PRESET_STYLES]),
    multiple=True,
    help="Preset style. Can be repeated.",
)
@click.option(
    "--custom-prompt",
    "custom_prompts",
    multiple=True,
    help="Free-text style. Can be repeated.",
)
@click.option(
    "--count",
    type=click.IntRange(min=1, max=10),
    default=1,
    show_default=True,
    help="Variations per image and style.",
)
@click.option("--model", default=None, help="Image model override.")
@click.option("--aspect-ratio", default="1:1", show_default=True, help="Output aspect ratio.")
@click.option(
    "--image-size",
    type=click.Choice(["1K", "2K", "4K"]),
    default="1K",
    show_default=True,
    help="Output size (pro models only).",
)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Gallery folder for results.",
)
def batch(  # noqa: PLR0913
    target_images: tuple[Path, ...],
    styles: tuple[str, ...],
    custom_prompts: tuple[str, ...],
    count: int,
    model: str | None,
    aspect_ratio: str,
    image_size: str,
    output_dir: Path | None,
) -> None:
    """Restyle images with preset and custom styles."""

    if not styles and not any(prompt.strip() for prompt in custom_prompts):
        raise click.UsageError("Pass at least one --style or --custom-prompt.")
    _finish(
        STUDIO_CONTROLLER.generate_batch(
            BatchCommand(
                target_images=target_images,
                styles=styles,
                custom_prompts=custom_prompts,
                count=count,
                model=model,
                aspect_ratio=aspect_ratio,
                image_size=image_size,
                output_dir=output_dir,
            ),
        ),
    )


@studio_queue.command("video")
@click.option("--prompt", default="", help="Scene description.")
@click.option("--negative-prompt", default="", help="Things the video should avoid.")
@click.option("--source-image", type=_IMAGE_PATH, default=None, help="Image to animate.")
@click.option(
    "--resolution",
    type=click.Choice(["720p", "1080p"]),
    default="720p",
    show_default=True,
    help="Output resolution; 1080p uses the higher-capability model.",
)
@click.option(
    "--aspect-ratio",
    type=click.Choice(["16:9", "9:16", "1:1"]),
    default="16:9",
    show_default=True,
    help="Output aspect ratio.",
)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Gallery folder for results.",
)
def video(  # noqa: PLR0913
    prompt: str,
    negative_prompt: str,
    source_image: Path | None,
    resolution: str,
    aspect_ratio: str,
    output_dir: Path | None,
) -> None:
    """Generate a video from a prompt and/or a source image."""

    if not prompt.strip() and source_image is None:
        raise click.UsageError("Provide --prompt or --source-image.")
    _finish(
        STUDIO_CONTROLLER.generate_video(
            VideoCommand(
                prompt=prompt,
                negative_prompt=negative_prompt,
                source_image=source_image,
                resolution=resolution,
                aspect_ratio=aspect_ratio,
                output_dir=output_dir,
            ),
        ),
    )


def _finish(result: SessionResult) -> None:
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Generation queue finished with errors.")


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    studio_queue()
