"""Reading and writing plan files."""
import logging
import os
from pathlib import Path

import yaml

from .models import Plan

logger = logging.getLogger("planctl.plan")


class FilePlanner:
    """Reads and writes a plan stored as a YAML file."""

    def __init__(self, file: str):
        self.file = file

    def exists(self) -> bool:
        return Path(self.file).exists()

    def read(self) -> Plan:
        """Read the plan from the file.

        Raises:
            FileNotFoundError: If the file does not exist
            yaml.YAMLError: If the file is not valid YAML
            pydantic.ValidationError: If the file content is not a plan
        """
        with open(self.file, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
        plan = Plan.model_validate(data)
        logger.debug(f"Read plan from {self.file}")
        return plan

    def write(self, plan: Plan) -> None:
        """Write the plan to the file, creating parent directories as needed."""
        parent = os.path.dirname(os.path.abspath(self.file))
        os.makedirs(parent, exist_ok=True)
        with open(self.file, 'w', encoding='utf-8') as f:
            yaml.safe_dump(plan.model_dump(), f, default_flow_style=False, sort_keys=False)
        logger.debug(f"Wrote plan to {self.file}")
