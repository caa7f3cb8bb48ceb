"""Pure domain layer: currency arithmetic, clock, audit payloads, DTOs."""
