import abc
import logging
from pathlib import Path
from typing import Dict, Any

import pandas as pd

from topreco.utils.file_io import save_dataframe, save_json

class BaseEngine(abc.ABC):
    """
    Abstract base class for the batch engines.

    Provides:
    - Configuration and logger attachment.
    - One numbered output directory per engine under outputs.base_results_dir.
    - Table/JSON writers that honour outputs.skip_dir_creation and
      outputs.save_excel_copy.
    """

    def __init__(self, config: Dict[str, Any], logger: logging.Logger):
        self.config = config
        self.logger = logger
        outputs = self.config.get('outputs', {})
        self.base_dir = Path(outputs.get('base_results_dir', 'results'))
        self.output_dir = self.base_dir / self._get_engine_directory_name()
        self.write_outputs = not outputs.get('skip_dir_creation', False)
        self.excel_copy = outputs.get('save_excel_copy', False)

        if self.write_outputs:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            self.logger.info(f"Output directory for {self.__class__.__name__}: {self.output_dir}")

    @abc.abstractmethod
    def _get_engine_directory_name(self) -> str:
        """Directory name for the engine's output, e.g. '03_TopReconstruction'."""
        raise NotImplementedError("Subclasses must implement _get_engine_directory_name.")

    def save_table(self, df: pd.DataFrame, filename: str) -> None:
        if self.write_outputs:
            path = save_dataframe(df, self.output_dir / filename, excel_copy=self.excel_copy, index=False)
            self.logger.debug(f"Saved {len(df)} rows to {path}")

    def save_summary(self, payload: Dict[str, Any], filename: str) -> None:
        if self.write_outputs:
            save_json(payload, self.output_dir / filename)

    @abc.abstractmethod
    def execute(self, *args, **kwargs) -> Any:
        """Main execution method; implemented by every engine."""
        pass
