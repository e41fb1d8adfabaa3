"""Service layer: attempt lifecycle, answers, timer, scoring and rankings."""
