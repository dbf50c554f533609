"""Kernel functional types – public re-export surface.

Modules:
  result.py — Ok, Err, Result, attempt
  option.py — Some, Nothing, Option
"""

from mp_payloads.kernel.types.option import Nothing, Option, Some
from mp_payloads.kernel.types.result import Err, Ok, Result, attempt

__all__ = ["Err", "Nothing", "Ok", "Option", "Result", "Some", "attempt"]
