import sys

from sitemap_iterator.cli import main

sys.exit(main())
