"""
System instruction loading.

Instructions are opaque text kept in ``config/prompts/<topic>.txt``; the
pipeline never inspects their content.
"""

from __future__ import annotations

from pathlib import Path

from .config import PROMPTS_DIR


def load_system_instruction(topic: str, prompts_dir: Path = PROMPTS_DIR) -> str:
    """
    Read the system instruction for ``topic``.

    Args:
        topic: Topic label; the file ``<topic>.txt`` must exist.
        prompts_dir: Directory containing the instruction files.

    Returns:
        Instruction text with surrounding whitespace removed.

    Raises:
        FileNotFoundError: No instruction file for the topic.
        ValueError: The instruction file is empty.
    """
    path = Path(prompts_dir) / f"{topic}.txt"
    if not path.exists():
        raise FileNotFoundError(
            f"System instruction not found for topic '{topic}': {path}\n"
            "Add a <topic>.txt file to config/prompts/."
        )

    text = path.read_text(encoding="utf-8").strip()
    if not text:
        raise ValueError(f"System instruction file is empty: {path}")
    return text
