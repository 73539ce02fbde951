from shell_postprocessor.cli import main

raise SystemExit(main())
