"""
Unit tests for src/curation/prompts.py.
"""

from __future__ import annotations

import pytest

from config.model_params import TOPIC_SEQUENCE
from src.curation.prompts import load_system_instruction


class TestLoadSystemInstruction:

    @pytest.mark.parametrize("topic", TOPIC_SEQUENCE)
    def test_every_topic_has_an_instruction(self, topic):
        assert "corrected_topic" in load_system_instruction(topic)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_system_instruction("monomios", prompts_dir=tmp_path)

    def test_empty_file(self, tmp_path):
        (tmp_path / "monomios.txt").write_text("  \n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_system_instruction("monomios", prompts_dir=tmp_path)

    def test_whitespace_trimmed(self, tmp_path):
        (tmp_path / "binomios.txt").write_text("\nCurate.\n\n", encoding="utf-8")
        assert load_system_instruction("binomios", prompts_dir=tmp_path) == "Curate."
