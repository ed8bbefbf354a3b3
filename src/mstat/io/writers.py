"""Persisting pipeline results."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

from ..config.settings import settings
from ..core.models import MStatResult
from ..utils.logging import get_logger

logger = get_logger(__name__)


def create_output_dir(prefix: str = "mstat", timestamp: Optional[datetime] = None) -> Path:
    if timestamp is None:
        timestamp = datetime.now()
    dirname = f"{prefix}_{timestamp.strftime('%Y%m%d_%H%M%S')}"
    dirpath = settings.output_dir / dirname
    dirpath.mkdir(parents=True, exist_ok=True)
    return dirpath


def write_results(result: MStatResult, output_dir: Path) -> Dict[str, Path]:
    """Write the result tables as CSV and the scalars as ``summary.json``.

    Returns:
        Mapping from table name to the written file.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    paths = {
        "dataset": output_dir / "m_dataset.csv",
        "studies": output_dir / "m_studies.csv",
        "influential": output_dir / "influential_studies.csv",
        "underperforming": output_dir / "underperforming_studies.csv",
        "variant_fits": output_dir / "variant_fits.csv",
        "summary": output_dir / "summary.json",
    }
    result.dataset.to_csv(paths["dataset"], index=False)
    result.studies.to_csv(paths["studies"], index=False)
    result.influential.to_csv(paths["influential"], index=False)
    result.underperforming.to_csv(paths["underperforming"], index=False)
    result.variant_fits.to_csv(paths["variant_fits"], index=False)
    summary = {
        **result.null_model.model_dump(),
        "config": result.config.model_dump(),
        "excluded_variants": [v.model_dump() for v in result.excluded_variants],
    }
    with open(paths["summary"], "w") as f:
        json.dump(summary, f, indent=2)
    logger.info(f"Wrote {len(paths)} result files to {output_dir}")
    return paths
