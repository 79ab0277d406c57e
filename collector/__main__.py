from collector.main import main

main()
