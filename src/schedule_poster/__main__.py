import sys

from schedule_poster.service.main import main

sys.exit(main())
