"""Ingestion layer.

Turns raw sensor fixes into validated samples. Nothing downstream of this
package inspects raw fix dictionaries.
"""
