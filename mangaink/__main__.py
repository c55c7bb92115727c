from mangaink.main import main

main()
