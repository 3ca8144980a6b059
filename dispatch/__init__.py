"""Dispatch application for the ambulance backend.

This package contains the occurrence dispatch core (numbering, crew
composition, slot provisioning, availability, participation claims and
the status lifecycle) together with its API routes and event stream.
"""
