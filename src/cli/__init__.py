"""Terminal commands for taking assessments."""
