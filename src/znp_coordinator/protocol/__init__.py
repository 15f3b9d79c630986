"""Protocol layer: frame codec, command tables, request builders and parsers."""

from .framing import Frame, FrameBuffer, build_frame, parse_frame
from .commands import CommandType, Subsystem, frame_class
