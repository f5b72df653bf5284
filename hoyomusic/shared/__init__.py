"""Infrastructure shared by the HoYoMusic API: config, logging, db, storage."""
