"""
Calendar domain

Office hours, clinic holidays and doctor absences. Administrative writes only;
the availability engine reads them.
"""
