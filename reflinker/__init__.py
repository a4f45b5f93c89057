"""reflinker - swap NuGet references for local project references in Visual Studio solutions."""

from reflinker.config import LinkerConfig, SwapDirection, SwapResult
from reflinker.linker import ReferenceLinker, swap

__version__ = "0.1.0"
__all__ = ["LinkerConfig", "ReferenceLinker", "SwapDirection", "SwapResult", "swap"]
