"""Reading observations and writing results."""

from .loaders import read_observations, observations_to_frame  # noqa: F401
from .validation import validate_observations  # noqa: F401
from .writers import write_results, create_output_dir  # noqa: F401
