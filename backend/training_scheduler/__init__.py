"""Topic, course and learning-path scheduling over a working-day calendar."""
