#!/usr/bin/env python
import os
import sys
from pathlib import Path
from dotenv import load_dotenv

def main():
    # Same backend/.env the settings module reads
    load_dotenv(Path(__file__).resolve().parent / '.env')

    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'learnhub.settings')
    from django.core.management import execute_from_command_line
    execute_from_command_line(sys.argv)

if __name__ == '__main__':
    main()
