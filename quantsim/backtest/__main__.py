from quantsim.backtest.cli import main

raise SystemExit(main())
