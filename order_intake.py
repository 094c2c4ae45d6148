#!/usr/bin/env python3
"""
Marketplace Order Intake System

Reads marketplace shipment documents, queues their order lines against the
product catalog and produces pick lists.

Usage:
    python order_intake.py ingest labels/*.pdf --platform flipkart
    python order_intake.py queue generate-picklist
"""

from cli.main import main


if __name__ == '__main__':
    main()
