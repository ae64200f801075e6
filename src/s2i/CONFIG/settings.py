"""
Runtime settings, read from S2I_* environment variables and .env files.
"""
import os
from typing import Dict, Optional
from dotenv import dotenv_values
from pydantic import BaseModel, ValidationError

from ..errors import RecipeError

ENV_PREFIX = "S2I_"

class Settings(BaseModel):
    """
    Settings for the builder and the container engine backend.
    """
    docker_host: Optional[str] = None
    log_level: str = "INFO"
    log_file: Optional[str] = None
    build_timeout: Optional[float] = None
    staging_root: Optional[str] = None
    keep_context: bool = False

    # Merged environment, used for recipe interpolation
    context: Dict[str, str] = {}

    @classmethod
    def load(cls,
             env_file: Optional[str] = None,
             environ: Optional[Dict[str, str]] = None,
             **overrides) -> "Settings":
        """
        Merges a .env file with the process environment (the process
        environment wins) and reads every S2I_<FIELD> variable.

        :param env_file: Optional .env path; a missing file is ignored.
        :param environ: Environment to use instead of os.environ.
        :param overrides: Explicit values, applied last.
        :raises RecipeError: If a value cannot be converted.
        """
        merged: Dict[str, str] = {}
        if env_file and os.path.exists(env_file):
            merged.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
        merged.update(os.environ if environ is None else environ)

        values = {}
        for field in cls.model_fields:
            if field == "context":
                continue
            raw = merged.get(ENV_PREFIX + field.upper())
            if raw not in (None, ""):
                values[field] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        values["context"] = merged

        try:
            return cls(**values)
        except ValidationError as e:
            raise RecipeError(f"Invalid settings: {e}") from e
