from webserver.main import main


main()
