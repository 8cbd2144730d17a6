"""Rendering of templated proxy configuration fixtures."""

import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from string import Template
from typing import Iterator

logger = logging.getLogger(__name__)


def render_config(template_path: str | Path, **values: str) -> Path:
    """
    Render a ${name}-style template into a new temporary file.

    The rendered file keeps the template's suffix so the proxy recognizes
    its format. The caller owns the returned file.

    Raises:
        KeyError: If the template references a value that was not given
    """
    template_path = Path(template_path)
    content = Template(template_path.read_text(encoding="utf-8")).substitute(values)

    fd, rendered = tempfile.mkstemp(prefix=f"{template_path.stem}-", suffix=template_path.suffix)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(content)

    logger.debug(f"Rendered {template_path} to {rendered}")
    return Path(rendered)


@contextmanager
def rendered_config(template_path: str | Path, **values: str) -> Iterator[Path]:
    """Render a template for the duration of a block, then remove it."""
    path = render_config(template_path, **values)
    try:
        yield path
    finally:
        path.unlink(missing_ok=True)
