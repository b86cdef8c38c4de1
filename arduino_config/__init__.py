"""Board discovery and project configuration core for the Arduino input/display editor."""
