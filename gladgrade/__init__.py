"""GladGrade Portal backend."""
