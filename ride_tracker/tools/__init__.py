"""Developer tools for replaying and inspecting recorded rides."""
