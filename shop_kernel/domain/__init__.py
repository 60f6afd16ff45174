"""Pure domain layer: enumerations, pricing, DTOs and the clock."""
