from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from pathlib import Path

CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.json"

DEFAULTS = {
    "llm_provider": "ollama",
    "llm_model": "qwen3:8b",
    "ollama_url": "http://localhost:11434",
    "db_path": "materials.db",
    "max_retries": 5,
    "backoff_base_ms": 1000,
    "concurrent_stages": True,
    "max_concurrent_passages": 1,
    "pdf_font_path": "",
    "export_dir": "exports",
}


@dataclass
class Settings:
    llm_provider: str = DEFAULTS["llm_provider"]
    llm_model: str = DEFAULTS["llm_model"]
    ollama_url: str = DEFAULTS["ollama_url"]
    db_path: str = DEFAULTS["db_path"]
    max_retries: int = DEFAULTS["max_retries"]
    backoff_base_ms: int = DEFAULTS["backoff_base_ms"]
    concurrent_stages: bool = DEFAULTS["concurrent_stages"]
    max_concurrent_passages: int = DEFAULTS["max_concurrent_passages"]
    pdf_font_path: str = DEFAULTS["pdf_font_path"]
    export_dir: str = DEFAULTS["export_dir"]

    @property
    def project_root(self) -> Path:
        return Path(__file__).resolve().parent.parent

    @property
    def db_full_path(self) -> Path:
        return self.project_root / self.db_path

    @property
    def export_full_path(self) -> Path:
        return self.project_root / self.export_dir

    @property
    def pdf_font(self) -> Path | None:
        if not self.pdf_font_path:
            return None
        p = Path(self.pdf_font_path)
        return p if p.is_absolute() else self.project_root / p

    def pipeline_options(self) -> dict:
        """Keyword arguments for ``generate_all_content``."""
        return {
            "max_retries": self.max_retries,
            "base_delay_ms": self.backoff_base_ms,
            "concurrent": self.concurrent_stages,
            "max_concurrent_passages": self.max_concurrent_passages,
        }

    def to_dict(self) -> dict:
        return asdict(self)


def load_settings() -> Settings:
    if CONFIG_PATH.exists():
        raw = json.loads(CONFIG_PATH.read_text())
        known = {f.name for f in Settings.__dataclass_fields__.values()}
        filtered = {k: v for k, v in raw.items() if k in known}
        return Settings(**filtered)
    return Settings()


def save_settings(settings: Settings) -> None:
    CONFIG_PATH.write_text(json.dumps(settings.to_dict(), indent=4) + "\n")
