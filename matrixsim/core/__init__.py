"""Core engine components for matrixsim."""
