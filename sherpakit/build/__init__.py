"""Native sherpa-onnx builds (CMake) and cross-compilation settings."""

from sherpakit.build.cmake import NativeBuilder, cmake_definitions
from sherpakit.build.cross import CrossCompileTarget, cross_compile_variables

__all__ = [
    "NativeBuilder",
    "cmake_definitions",
    "CrossCompileTarget",
    "cross_compile_variables",
]
