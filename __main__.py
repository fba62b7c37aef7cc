"""
Run HearthChat from a source checkout: `python . server`.
"""

from HearthChat.__main__ import main

if __name__ == '__main__':
    main()
