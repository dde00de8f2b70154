"""Utility modules for honeybee-device.

Exports are resolved lazily via ``__getattr__`` so that importing this
package does not pull in OpenCV.

Available exports (lazy-loaded):
    ImageCodec: Protocol for frame decode/encode
    CV2ImageCodec: OpenCV-based implementation
"""

__all__ = ["ImageCodec", "CV2ImageCodec"]


def __getattr__(name: str) -> type:
    """Import image codec classes on first access and cache them.

    Raises:
        AttributeError: If name is not a public export.
    """
    if name in ("ImageCodec", "CV2ImageCodec"):
        from honeybee_device.utils.image import CV2ImageCodec, ImageCodec

        globals()["ImageCodec"] = ImageCodec
        globals()["CV2ImageCodec"] = CV2ImageCodec
        return globals()[name]
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> list[str]:
    return [*__all__, "__all__", "__doc__", "__name__", "__file__"]
