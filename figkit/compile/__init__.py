from .frames import crop_frame_tensor, frame_tensor, frame_to_tensor

__all__ = ["crop_frame_tensor", "frame_tensor", "frame_to_tensor"]
