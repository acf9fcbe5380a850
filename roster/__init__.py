"""Roster: student records with a local query engine and CSV import/export."""
