"""
Image upload CLI tool.

Attaches local image files to a catalog product through the same path the
API uses (resize, media store upload, product update).

Usage:
    poetry run upload-images --product-id 65f0c2... --source ./photos/
    poetry run upload-images --barcode 8901234567890 --source ./photos/ --dry-run
"""

import getpass
from pathlib import Path

import click
import structlog

from storefront.auth import Principal
from storefront.catalog import ProductService, UploadedFile
from storefront.config import configure_logging, get_settings
from storefront.db import close_client, get_database
from storefront.errors import ApiError
from storefront.models import Role
from storefront.storage import get_media_store

logger = structlog.get_logger(__name__)

# Supported image extensions
SUPPORTED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp"}


def get_content_type(extension: str) -> str:
    """Get MIME type from file extension."""
    mapping = {
        ".jpg": "image/jpeg",
        ".jpeg": "image/jpeg",
        ".png": "image/png",
        ".gif": "image/gif",
        ".bmp": "image/bmp",
        ".webp": "image/webp",
    }
    return mapping.get(extension.lower(), "application/octet-stream")


def find_images(source_dir: Path, recursive: bool = False) -> list[Path]:
    """Find all supported image files in a directory."""
    pattern = source_dir.rglob if recursive else source_dir.glob
    return sorted(p for p in pattern("*") if p.is_file() and p.suffix.lower() in SUPPORTED_EXTENSIONS)


def load_file(file_path: Path) -> UploadedFile:
    return UploadedFile(
        filename=file_path.name,
        content_type=get_content_type(file_path.suffix),
        data=file_path.read_bytes(),
    )


def chunked(items: list[Path], size: int) -> list[list[Path]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


@click.command()
@click.option("--product-id", default=None, help="Product to attach images to")
@click.option("--barcode", default=None, help="Look the product up by barcode instead")
@click.option(
    "--source",
    required=True,
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
    help="Source directory containing images",
)
@click.option(
    "--recursive",
    is_flag=True,
    help="Recursively search for images in subdirectories",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Show what would be uploaded without uploading",
)
def main(
    product_id: str | None,
    barcode: str | None,
    source: Path,
    recursive: bool,
    dry_run: bool,
):
    """Upload local product photos to the catalog."""
    if bool(product_id) == bool(barcode):
        raise click.UsageError("Pass exactly one of --product-id or --barcode")

    images = find_images(source, recursive)
    if not images:
        click.echo("No images found in the specified directory.")
        return

    click.echo(f"Found {len(images)} images")

    if dry_run:
        click.echo("\n[DRY RUN] Would upload:")
        for img in images[:10]:
            click.echo(f"  - {img.name}")
        if len(images) > 10:
            click.echo(f"  ... and {len(images) - 10} more")
        return

    settings = get_settings()
    configure_logging(settings)
    operator = Principal(role=Role.ADMIN, user_id=f"cli:{getpass.getuser()}")
    service = ProductService(get_database(), settings, get_media_store())

    success_count = 0
    fail_count = 0
    try:
        if barcode:
            found = service.find_by_barcode(operator, barcode)["products"]
            if not found:
                raise click.ClickException(f"No product with barcode {barcode}")
            product_id = found[0]["_id"]

        for batch in chunked(images, settings.upload_max_files):
            try:
                result = service.attach_images(operator, product_id, [load_file(p) for p in batch])
            except ApiError as e:
                logger.error("Batch rejected", product_id=product_id, error=e.message, **e.extra)
                fail_count += len(batch)
                continue

            success_count += len(result["uploadedImages"])
            for failure in result.get("uploadErrors", []):
                fail_count += 1
                click.echo(f"  ! {failure['fileName']}: {failure['error']}", err=True)
    finally:
        close_client()

    click.echo("")
    click.echo("Upload complete!")
    click.echo(f"  Successful: {success_count}")
    click.echo(f"  Failed: {fail_count}")


if __name__ == "__main__":
    main()
