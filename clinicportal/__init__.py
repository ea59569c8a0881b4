"""ClinicPortal API - tenant seat licensing and appointment feedback"""
