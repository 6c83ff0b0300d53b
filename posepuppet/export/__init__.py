"""Template export module"""

from .template_io import (
    save_template,
    load_template,
    template_to_record,
    template_from_record,
)

__all__ = [
    "save_template", "load_template",
    "template_to_record", "template_from_record",
]
