"""Domain packages: calendar, scheduling, appointments, payments"""
