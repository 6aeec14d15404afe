"""Pure domain layer: enums, clock, effect DTOs and interest arithmetic."""
