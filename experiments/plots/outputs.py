"""Where a funnel run writes its tables and figures."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from src.funnel import FunnelResult


@dataclass(frozen=True)
class FunnelRunOutputs:
    """File layout for one run: two CSV tables plus the optional figure files."""

    directory: Path
    save_static: bool = True
    save_html: bool = True
    stem: str = "funnel"

    @property
    def aggregated_csv(self) -> Path:
        return self.directory / f"{self.stem}_aggregated.csv"

    @property
    def limits_csv(self) -> Path:
        return self.directory / f"{self.stem}_limits.csv"

    @property
    def png_path(self) -> Path:
        return self.directory / f"{self.stem}.png"

    @property
    def html_path(self) -> Path:
        return self.directory / f"{self.stem}.html"

    def write_tables(self, result: FunnelResult) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        result.to_frame().to_csv(self.aggregated_csv, index=False)
        result.limits_frame().to_csv(self.limits_csv, index=False)


@dataclass(frozen=True)
class FunnelOutputConfig:
    """Places each run under ``base_dir / run_tag``; the tag defaults to a UTC timestamp."""

    base_dir: Path
    run_tag: Optional[str] = None
    save_static: bool = True
    save_html: bool = True

    def for_run(self, stem: str = "funnel") -> FunnelRunOutputs:
        tag = self.run_tag or datetime.utcnow().strftime("%Y%m%d-%H%M%S")
        return FunnelRunOutputs(
            directory=self.base_dir / tag,
            save_static=self.save_static,
            save_html=self.save_html,
            stem=stem,
        )


__all__ = ["FunnelOutputConfig", "FunnelRunOutputs"]
