"""
SherpaKit - native dependency resolver for sherpa-onnx bindings.

Resolves the sherpa-onnx C API libraries for a compilation target, from a
prebuilt archive, the shared cache or a CMake build, and tells the outer
build system how to link them.
"""

__version__ = "0.1.0"
