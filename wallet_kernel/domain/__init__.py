"""Pure domain layer: clock, currency registry, DTOs, conversion arithmetic."""
