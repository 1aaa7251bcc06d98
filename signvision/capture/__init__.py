"""
Capture Module.

Responsibilities:
- Parsing vision-service replies into detections
- Dropping malformed records without losing the frame
"""

from .vision_response import VisionResponse, parse_response
