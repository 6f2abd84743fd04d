class SegmentationError(Exception):
    """Base class for every error the segmentation engine raises."""


class InputError(SegmentationError):
    """Missing or malformed image payload. Rejected before the pipeline starts."""


class DecodeError(SegmentationError):
    """The image codec could not parse the payload."""


class EncodeError(SegmentationError):
    """A mask or overlay could not be serialized to an image format."""


class AcceleratorUnavailable(SegmentationError):
    """The optional native imaging library failed to load or failed mid-stage."""
