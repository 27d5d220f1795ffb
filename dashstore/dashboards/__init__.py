"""dashstore dashboards — store facade, cascade delete and DTOs."""
